import os
import sys

# Ensure project root is on sys.path so `import backend` resolves consistently
ROOT = os.path.dirname(os.path.abspath(__file__))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
os.chdir(ROOT)  # ensure relative paths (like SQLite) resolve to project root

from backend import create_app
from forumcore.config import load_config, setup_logging

config = load_config(os.getenv("FORUM_CONFIG"))
app = create_app(config)
setup_logging(config, app.logger.name)

if __name__ == "__main__":
    host = config["server"]["host"]
    port = int(config["server"]["port"])
    app.logger.info(f"Starting Flask on {host}:{port}")
    # Disable reloader to keep a single process managed by this script
    app.run(host=host, port=port, debug=False, use_reloader=False)
