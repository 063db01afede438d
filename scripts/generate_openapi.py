"""Print the lifecycle engine's OpenAPI schema as JSON."""

import json

from subscription_engine.main import app

if __name__ == "__main__":
    print(json.dumps(app.openapi()))
