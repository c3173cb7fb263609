from rahmah import create_app

app = create_app()
