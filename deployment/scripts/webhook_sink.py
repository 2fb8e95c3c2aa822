#!/usr/bin/env python3
"""Local webhook receiver for manual end-to-end checks.

Point a watcher's webhook url at http://<host>:9000/hook and watch the
notifications arrive. Requests without the expected bearer token are
rejected with 401.
"""

import json
import os
from datetime import datetime

import uvicorn
from fastapi import FastAPI, Header, HTTPException, Request

EXPECTED_TOKEN = os.getenv("SINK_TOKEN", "abc123")
PORT = int(os.getenv("SINK_PORT", "9000"))

app = FastAPI()


@app.post("/hook")
async def hook(request: Request, authorization: str = Header(default="")):
    if authorization != f"Bearer {EXPECTED_TOKEN}":
        print(f"[{datetime.now()}] rejected request with authorization={authorization[:12]!r}")
        raise HTTPException(status_code=401, detail="bad token")

    body = await request.json()
    deployment = body.get("deployment", {})
    print(
        f"[{datetime.now()}] {body.get('watcher_name')} {body.get('event_type')} "
        f"{deployment.get('namespace')}/{deployment.get('name')} "
        f"replicas={deployment.get('replicas')} ready={deployment.get('ready_replicas')}"
    )
    print(json.dumps(body, indent=2))
    return {"received": True}


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=PORT)
