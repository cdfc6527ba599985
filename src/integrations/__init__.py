"""
Music catalog adapters (Spotify Web API, Last.fm).
"""
