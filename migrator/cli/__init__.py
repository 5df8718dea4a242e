# migrator/cli/__init__.py
