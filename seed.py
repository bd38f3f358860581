from spacebooking import create_app, db
from spacebooking.models import User, Space, Course, Role
from werkzeug.security import generate_password_hash

app = create_app()

with app.app_context():
    db.create_all()

    # Create Users (one per role)
    users_data = [
        {"username": "admin", "email": "admin@campus.edu", "full_name": "Campus Admin", "role": Role.ADMIN},
        {"username": "prof", "email": "prof@campus.edu", "full_name": "Ada Staff", "role": Role.STAFF},
        {"username": "student", "email": "student@campus.edu", "full_name": "Sam Member", "role": Role.MEMBER},
        {"username": "visitor", "email": "visitor@campus.edu", "full_name": "Guest Visitor", "role": Role.GUEST},
    ]

    for u_data in users_data:
        if not User.query.filter_by(username=u_data['username']).first():
            user = User(
                username=u_data['username'],
                email=u_data['email'],
                full_name=u_data['full_name'],
                password_hash=generate_password_hash('password', method='pbkdf2:sha256'),
                role=u_data['role']
            )
            db.session.add(user)
            print(f"User {user.username} created ({user.role}/password)")

    # Create Spaces
    spaces_data = [
        {"name": "Laboratorio 101", "space_type": "lab", "location": "Building A, floor 1"},
        {"name": "Laboratorio 202", "space_type": "lab", "location": "Building A, floor 2"},
        {"name": "Aula Magna", "space_type": "classroom", "location": "Main building"},
        {"name": "Sala de Estudio", "space_type": "study_room", "location": "Library"}
    ]

    for s_data in spaces_data:
        if not Space.query.filter_by(name=s_data['name']).first():
            space = Space(**s_data)
            db.session.add(space)
            print(f"Space {space.name} created.")

    # Create Courses
    courses_data = [
        {"code": "CS101", "name": "Intro to Programming"},
        {"code": "CHEM210", "name": "Organic Chemistry Lab"}
    ]

    for c_data in courses_data:
        if not Course.query.filter_by(code=c_data['code']).first():
            db.session.add(Course(**c_data))
            print(f"Course {c_data['code']} created.")

    db.session.commit()
    print("Database seeded successfully.")
