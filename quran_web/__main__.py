from __future__ import annotations

import uvicorn

from .main import SETTINGS_PATH, app
from .settings import SettingsManager


def main() -> None:
    server = SettingsManager(SETTINGS_PATH).server
    uvicorn.run(app, host=server["host"], port=int(server["port"]))


if __name__ == "__main__":
    main()
