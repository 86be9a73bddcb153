# mccdash/services/__init__.py
