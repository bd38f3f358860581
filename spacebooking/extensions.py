from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from spacebooking.services.locks import SpaceLockRegistry

db = SQLAlchemy()
migrate = Migrate()

# Process-wide; shared by every app instance in this interpreter.
space_locks = SpaceLockRegistry()
