from .catalog import bp as catalog_bp
from .forum import bp as forum_bp
from .users import bp as users_bp

BLUEPRINTS = (catalog_bp, forum_bp, users_bp)
