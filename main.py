import os
from dotenv import load_dotenv
import uvicorn

load_dotenv()

if __name__ == '__main__':
    uvicorn.run("app:app",
                host=os.getenv("APP_HOST", "0.0.0.0"),
                port=int(os.getenv("APP_PORT", "8000")),
                app_dir="backend",
                reload=True)
