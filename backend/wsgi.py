from stockflow import create_app

app = create_app()
