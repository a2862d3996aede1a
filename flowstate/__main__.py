"""
App Entry Point
"""

import uvicorn

from flowstate.core.config import settings
from flowstate.core.log import uvicorn_log_config

if __name__ == "__main__":
    uvicorn.run(
        "flowstate.main:app",
        host=settings.APP_HOST,
        port=settings.APP_PORT,
        workers=settings.APP_WORKERS,
        log_config=uvicorn_log_config,
        reload=False,
        forwarded_allow_ips="*",
    )
