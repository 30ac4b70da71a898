import random
from typing import Optional
from urllib.parse import quote

POLLINATIONS_URL = "https://pollinations.ai/p"

# Appended to every description so generated images share one look.
STYLE_QUALIFIERS = "cinematic, hyper-detailed, photorealistic, 8k"


def build_image_url(
    description: str,
    rng: Optional[random.Random] = None,
    size: int = 512,
) -> str:
    """
    Build a Pollinations request URL for a board image.

    The service renders on GET, so the URL itself is the request. A random seed
    keeps similar descriptions from hitting the same cached image.
    """
    rng = rng or random
    prompt = f"{description.strip()}, {STYLE_QUALIFIERS}" if description.strip() else STYLE_QUALIFIERS
    seed = rng.randint(0, 99999)
    return (
        f"{POLLINATIONS_URL}/{quote(prompt, safe='')}"
        f"?width={size}&height={size}&seed={seed}&nofeed=true"
    )
