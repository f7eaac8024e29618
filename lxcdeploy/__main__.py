from lxcdeploy.cli import app

app()
