REDIS_ROOMS_KEY = "chat:rooms" # set of every room name that has been joined
REDIS_MEMBERS_KEY = "chat:room:{room}:members" # room name - set of connection IDs
REDIS_MESSAGES_KEY = "chat:room:{room}:messages" # room name - list of message JSON, newest first
REDIS_EVENTS_CHANNEL = "chat:events" # single pub/sub channel shared by every instance

# **Bus envelope published on `chat:events`**
# - `room` = room name the payload is scoped to
# - `payload` = client-facing event (`type` + fields)
# - `exclude` = connection id that must not receive it (typing) or null
# - `origin` = SERVER_ID of the publishing instance
