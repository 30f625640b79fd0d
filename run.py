"""
Run the salesdash application
"""
import uvicorn
from salesdash.core.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "salesdash.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info",
    )
