# This module holds the per-session context handed to every executor

# +---------------------+
# |    Persistence      |   (Durable, external, best-effort)
# |---------------------|
# | Briefed item hash   |
# | Sender profiles     |
# +---------------------+

# +---------------------+
# |      State          |   (Current, in-memory, one per session)
# |---------------------|
# | Item statuses       |
# | Cursor + history    |
# | Paused / stopped    |
# | Undo ledger         |
# +---------------------+

#    \    /
#     \  /
#      \/
# +------------------------------+
# |        SessionContext        |   (Passed to each tool call)
# |------------------------------|
# | Tracker (registry, cursor)   |
# | Ledger, VIP set, mute map    |
# | Last spoken text             |
# +------------------------------+
#         |
#         v
#   [cursor context -> reasoning loop]
