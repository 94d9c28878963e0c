"""RPG Companion: tracker parsing, swipe-aware commits and prompt injection for role-play chats."""
