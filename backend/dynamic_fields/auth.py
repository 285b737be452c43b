from fastapi import Header, HTTPException

# purpose: resolve the acting user id recorded in create_by/change_by
# status: active


def get_current_actor(x_actor_id: str | None = Header(default=None)) -> int:
    if not x_actor_id:
        raise HTTPException(status_code=401, detail="Missing X-Actor-ID header")
    try:
        actor_id = int(x_actor_id)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid X-Actor-ID header")
    if actor_id <= 0:
        raise HTTPException(status_code=401, detail="Invalid X-Actor-ID header")
    return actor_id
