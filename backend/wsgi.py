from harvest import create_app

app = create_app()
