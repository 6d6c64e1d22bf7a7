"""
Route Overlay Pipeline

Synchronous per-request pipeline:
1. Decode - screenshot and background payloads to bitmaps
2. Extract - route layer and stats layer, concurrently
3. Composite - background, then route, then stats; PNG data URI out
"""
