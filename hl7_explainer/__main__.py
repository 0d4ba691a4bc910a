"""Run the gateway with uvicorn: ``python -m hl7_explainer``."""

import uvicorn

from hl7_explainer.app import app, get_config


def main() -> None:
    cfg = get_config()
    uvicorn.run(app, host=cfg.host, port=cfg.port)


if __name__ == "__main__":
    main()
