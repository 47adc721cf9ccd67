from dotenv import load_dotenv

from musicshare.application import create_app

load_dotenv()

app = create_app()
