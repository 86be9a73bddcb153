import os, sys

# Ensure we import from this app root
APP_ROOT = os.path.dirname(__file__)
if APP_ROOT not in sys.path:
    sys.path.insert(0, APP_ROOT)

# Guard against legacy env on shared hosts
os.environ.pop("PYTHONHOME", None)
os.environ.pop("PYTHONPATH", None)

from mccdash import create_app

application = create_app()
