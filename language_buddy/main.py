"""
Main application entry point for Language Buddy.
"""

import uvicorn
from .api.app import create_app

# Create the FastAPI application
app = create_app()

if __name__ == "__main__":
    uvicorn.run(
        "language_buddy.main:app",
        host="0.0.0.0",
        port=8080,
        reload=False
    )
