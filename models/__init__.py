"""
Persistence layer. `storage` is the process-wide DBStorage; create_app()
binds it to DATABASE_URL through storage.reload().
"""
from models.db_storage import DBStorage

storage = DBStorage()
