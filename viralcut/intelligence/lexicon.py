# Term banks are matched as substrings of diacritics-folded, lower-cased text.
from viralcut.intelligence.models import Angle

HOOK_TERMS = ["agora", "ninguem", "virada", "erro", "absurdo", "detalhe", "chocante", "nobody", "mistake", "shocking", "right now"]
CURIOSITY_TERMS = ["como", "por que", "segredo", "quase", "detalhe", "numero", "curiosidade", "how ", "why", "secret", "almost"]
CONTROVERSY_TERMS = ["pol", "controvers", "discorda", "treta", "debate", "absurdo", "disagree", "outrage"]
HUMOR_TERMS = ["meme", "engracado", "rir", "zoeira", "risos", "haha", "funny", "laugh"]
STORY_TERMS = ["historia", "aconteceu", "virada", "quando", "entao", "depois", "story", "happened", "then"]
VALUE_TERMS = ["estrategia", "reten", "resultado", "explicacao", "aplicar", "dica", "aprendi", "strategy", "results", "tip", "lesson"]

HIGHLIGHT_TERMS = [
    "viral",
    "reten",
    "gancho",
    "meme",
    "controvers",
    "detalhe",
    "resultado",
    "agora",
    "chocante",
    "absurd",
    "secret",
    "shocking",
]

EMOJIS = ["🔥", "😮", "👀", "⚡", "💥", "🎯", "🤯"]

HASHTAG_BANK = {
    Angle.HOOK: ["#StrongHook", "#HighRetention", "#WatchTillTheEnd"],
    Angle.CURIOSITY: ["#Curiosity", "#DidYouKnow", "#DontSkip"],
    Angle.CONTROVERSY: ["#HotTake", "#Debate", "#Controversy"],
    Angle.HUMOR: ["#Humor", "#Meme", "#FunnyClips"],
    Angle.STORYTELLING: ["#Storytelling", "#PlotTwist", "#TrueStory"],
    Angle.VALUE: ["#QuickTip", "#ContentCreator", "#DigitalMarketing"],
}

ALWAYS_ON_HASHTAGS = ["#Shorts", "#YouTubeShorts", "#ViralClips"]

TITLE_TEMPLATES = {
    Angle.HOOK: [
        "Strong hook that holds the audience ({n})",
        "Opening with high retention potential",
    ],
    Angle.CURIOSITY: [
        "The moment that sparks instant curiosity",
        "This detail keeps you watching to the end",
    ],
    Angle.CONTROVERSY: [
        "Controversial take that drives comments",
        "The part that splits opinions",
    ],
    Angle.HUMOR: [
        "Funny cut with high replay value",
        "Comedy timing made for Shorts and Reels",
    ],
    Angle.STORYTELLING: [
        "Story twist in under a minute",
        "Storytelling with retention pacing",
    ],
    Angle.VALUE: [
        "Quick tip with instant value",
        "Practical explanation with viral potential",
    ],
}
