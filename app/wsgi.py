from app.quoteboard import create_app

app = create_app()
