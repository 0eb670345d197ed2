"""Project factory server entry point"""

import uvicorn

from project_factory.core.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "project_factory.main:app",
        host="0.0.0.0",
        port=settings.SERVER_PORT,
        log_level="info",
    )
