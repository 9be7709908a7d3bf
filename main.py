"""
Root entrypoint — run with:
    uvicorn main:app --reload

Requires SECRET_KEY (and usually DATABASE_URL) in the environment or .env.
"""

from app.main import app  # noqa: F401

if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=5000, reload=True)
