from spacebooking.extensions import db

class Space(db.Model):
    __tablename__ = 'spaces'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), unique=True, nullable=False)
    space_type = db.Column(db.String(32), nullable=False)  # e.g. "classroom", "lab"
    location = db.Column(db.String(128))
    is_active = db.Column(db.Boolean, default=True)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'type': self.space_type,
            'location': self.location,
            'is_active': self.is_active
        }


class Course(db.Model):
    __tablename__ = 'courses'

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), unique=True, nullable=False)
    name = db.Column(db.String(128), nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'code': self.code,
            'name': self.name
        }
