from fastapi import FastAPI
from mangum import Mangum

from mirrorgate import MirrorGate
from dotenv import load_dotenv


load_dotenv()

mirrorgate = MirrorGate()
app = FastAPI()


mirrorgate.to_fastapi(app)


handler = Mangum(app)
