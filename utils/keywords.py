"""
Shared keyword tables for subject detection and source categorisation.
"""

CLAUDE_KEYWORDS = [
    "claude", "anthropic", "sonnet", "opus", "haiku", "constitutional ai", "claude code",
]

OPENAI_KEYWORDS = [
    "openai", "chatgpt", "gpt-4", "gpt-5", "gpt4", "gpt5", "gpt-4.1", "dall-e", "dalle",
    "sora", "sam altman", "o1", "o3", "o4", "codex",
]

# Dotted entries match the host or any subdomain; bare words match anywhere in the host.
SOCIAL_HOSTS = ["twitter.com", "x.com", "nitter"]

REDDIT_HOSTS = ["reddit.com"]

FORUM_HOSTS = [
    "news.ycombinator.com", "lobste.rs", "community.openai.com", "community.anthropic.com",
    "discourse", "forum",
]

NEWS_HOSTS = [
    "techcrunch.com", "theverge.com", "arstechnica.com", "reuters.com", "bloomberg.com",
    "cnbc.com", "bbc.com", "bbc.co.uk", "nytimes.com", "washingtonpost.com", "wired.com", "cnn.com",
    "zdnet.com", "venturebeat.com", "semafor.com", "9to5mac.com", "9to5google.com",
    "engadget.com", "tomsguide.com", "businessinsider.com", "fortune.com", "theinformation.com",
]

# Brand and corporate accounts never shown as community voices.
BRAND_ACCOUNTS = [
    "claudeai", "anthropicai", "openai", "openaidevs", "chatgpt", "openaieng", "cursor_ai",
    "code", "github", "googledeepmind", "googleai",
]

USE_CASE_EXCLUDED_ACCOUNTS = BRAND_ACCOUNTS + [
    "sama", "gaborcselle", "gdb", "maboroshi", "supabase", "vibecodeapp", "amanrsanger",
]

HEAD_TO_HEAD_PHRASES = [
    "vs", "compar", "switch", "tried both", "tested", "same prompt", "head to head",
    "better than", "outperform", "benchmark",
]

USE_CASE_PHRASES = [
    "built", "shipped", "created", "compiler", "workflow", "from scratch", "autonomous",
    "project", "my app", "made a", "i used", "just built", "minutes",
]
