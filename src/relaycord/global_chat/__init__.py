"""Global chat: channels, links, moderation and relaying."""
