from financehub import create_app

app = create_app()
