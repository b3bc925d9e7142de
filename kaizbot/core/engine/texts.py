# kaizbot/core/engine/texts.py
"""
User-facing texts.

Provides ``get_text(key, **kwargs)``; placeholders use ``str.format``
syntax and are filled at call time.
"""
from __future__ import annotations

TEXTS: dict[str, str] = {
    # --- Registration -----------------------------------------------------
    "terms_prompt": (
        "👋 Hi {name}! Before we start, please review and accept our Terms of Service.\n\n"
        "🔖 Your reference code: {code}\n\n"
        "By tapping Accept you agree to the terms. You can also finish "
        "registration on our website with your reference code."
    ),
    "terms_prompt_web_link": "🌐 Register online: {url}",
    "terms_pending": (
        "⏳ Your registration is not complete yet.\n\n"
        "Please accept the Terms of Service first to use the bot.\n"
        "🔖 Reference code: {code}"
    ),
    "terms_declined": (
        "❌ You declined the Terms of Service.\n\n"
        "You can't use the bot until you accept them. "
        "Send any message to see the terms again."
    ),
    "terms_declined_active": (
        "ℹ️ Your registration stays active, declining now changes nothing.\n\n"
        "Type /help to see what I can do."
    ),
    "registration_confirmed": (
        "✅ Registration complete!\n\n"
        "👤 {name}\n"
        "🔖 Reference code: {code}\n\n"
        "Thanks for accepting the terms."
    ),
    "registration_completed_web": (
        "🎉 Your registration {code} was confirmed on the website. Welcome aboard!"
    ),
    # --- Navigation -------------------------------------------------------
    "welcome": (
        "🎉 Welcome to {bot}! 🤖\n\n"
        "I'm your intelligent assistant powered by multiple AI models. Here's what I can do:\n\n"
        "🧠 AI Chat - Ask me anything!\n"
        "🎵 Downloaders - Spotify, TikTok and Instagram\n"
        "🔎 Search - TikTok videos and Wikipedia\n"
        "🖼️ Image Tools - Analysis and background removal\n"
        "⚡ Multiple AI Models - KAIZ AI, Gemini Pro, GPT-3, DeepSeek V3 and Llama 3\n\n"
        "Type 'help' or 'menu' to see all available commands!"
    ),
    "help": (
        "📋 {bot} Commands:\n\n"
        "🤖 AI Commands:\n"
        "• /ai [message] - KAIZ AI response\n"
        "• /gemini [message] - Gemini Pro response\n"
        "• /gpt [message] - GPT-3 response\n"
        "• /deepseek [message] - DeepSeek V3 response\n"
        "• /llama [message] - Llama 3 response\n\n"
        "🎵 Download Commands:\n"
        "• /spotify [URL] - Download Spotify track\n"
        "• /tiktok [URL] - Download TikTok video\n"
        "• /instagram [URL] - Download Instagram media\n"
        "• Or just send the link\n\n"
        "🔎 Search:\n"
        "• /tiksearch [query] - Search TikTok\n"
        "• /wiki [topic] - Search Wikipedia\n\n"
        "🖼️ Images:\n"
        "• Send any image for AI analysis\n"
        "• /removebg [image URL] - Remove background\n\n"
        "⚡ Quick Actions:\n"
        "• Type 'menu' for quick options\n"
        "• Type 'help' for this menu"
    ),
    "main_menu": "🎯 Choose an option:",
    "ai_menu": "🧠 Choose your AI model:",
    "music_menu": "🎵 Send me a Spotify, TikTok or Instagram link to download it!",
    "model_selected": "{label} ready! Send me any message or use {command} [your message]",
    # --- Results ----------------------------------------------------------
    "ai_response": "{label} Response:\n\n{text}",
    "track_ready": "🎵 {title} by {artist}\n\n✅ Ready to download!",
    "media_caption": "✅ {title}",
    "media_caption_default": "✅ Here is your {platform} download!",
    "search_header": "🔎 TikTok results for \"{query}\":\n\n{lines}",
    "wiki_result": "📚 {title}\n\n{summary}",
    "removebg_done": "✂️ Background removed!",
    "image_analyzing": "🔍 Analyzing your image with {label}...",
    "image_analysis": "🖼️ Image Analysis Results:\n\n{text}",
    "image_prompt": "Analyze this image: {url}",
    # --- Rejections -------------------------------------------------------
    "missing_argument": "❗ Please provide {what} after the command.\nExample: {usage}",
    "unknown_command": "❓ Unknown command {command}. Type \"help\" to see available commands.",
    "unsupported_attachment": "📎 I received your attachment. Currently, I can only analyze images.",
    "invalid_url": "❗ Please provide a valid {platform} URL.",
    "invalid_image_url": "❗ Please provide a valid image URL (starting with http).",
    "capability_failed": "🔧 Sorry, {feature} is not available right now. Please try again later.",
}


def get_text(key: str, **kwargs) -> str:
    """
    Get a user-facing text by key.

    Returns *key* itself if no text exists.
    """
    template = TEXTS.get(key)
    if template is None:
        return key
    return template.format(**kwargs) if kwargs else template
