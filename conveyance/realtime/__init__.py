# Real-time delivery: broadcast channel, hub, cross-process sync
