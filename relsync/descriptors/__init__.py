"""App descriptor patching (``docker-compose.yml`` and ``umbrel-app.yml``)."""
