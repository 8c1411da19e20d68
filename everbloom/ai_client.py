"""
AI text-generation client for EverBloom
Calls an OpenRouter-compatible chat completion endpoint with retries, and
falls back to canned local responses whenever the service is unavailable.
"""

import time
import logging
from typing import Any, Dict, List, Optional
import requests

from . import config

logger = logging.getLogger(__name__)


# ============================================================================
# LOCAL FALLBACK RESPONSES
# ============================================================================

FALLBACK_GIFT = """Here are some thoughtful gift ideas:

1. **Personalized Photo Album** - Create a collection of your favorite memories together with handwritten notes about each moment.

2. **Experience Gift** - Plan a special outing like a cooking class, nature walk, or visit to a local museum that matches their interests.

3. **Handwritten Letter** - Sometimes the most meaningful gift is expressing your feelings and appreciation in your own words.

Consider their personality and interests when choosing. The thought and care you put into selecting something meaningful matters more than the price tag."""

FALLBACK_ACTIVITY = """Here are some meaningful activities to enjoy together:

1. **Cook a Meal Together** - Choose a recipe you've both wanted to try and enjoy the process of creating something delicious.

2. **Take a Nature Walk** - Explore a local park or trail while having meaningful conversations away from distractions.

3. **Start a Creative Project** - Work on something together like a puzzle, art project, or even planning a future adventure.

The best activities are ones where you can connect, laugh, and create new memories together."""

FALLBACK_MESSAGE = """Here's a heartfelt message you could send:

"Hi! I was just thinking about you and wanted to reach out. I really appreciate having you in my life and all the joy you bring to it. I hope you're having a wonderful day, and I'd love to catch up soon. Take care! 💕"

Remember to:
- Be genuine and speak from the heart
- Reference specific memories or qualities you appreciate about them
- Ask questions to show you're interested in their life
- Keep the tone warm and personal"""

FALLBACK_FEEDBACK = """Here's some feedback on your message:

**Positive aspects:**
- Shows genuine care and interest
- Has a warm, friendly tone
- Invites further conversation

**Suggestions for improvement:**
- Consider adding a specific memory or shared experience
- Ask an open-ended question about their life
- Match the tone to your relationship dynamic

**Overall sentiment:** Your message comes across as caring and thoughtful. The recipient will likely appreciate hearing from you."""

FALLBACK_GENERAL = """I'd love to help you nurture your relationships! Here are some general suggestions:

💝 **Stay Connected**: Regular check-ins, even brief ones, help maintain strong bonds.

🎁 **Show Appreciation**: Express gratitude for the ways they enrich your life.

👂 **Listen Actively**: Give them your full attention when they share what's important to them.

🌟 **Create Memories**: Plan activities or experiences you can enjoy together.

Remember, the most important thing is being genuine and showing that you care. Small, consistent gestures often mean more than grand gestures."""

# Checked in order; first keyword hit wins
FALLBACK_ROUTES = [
    (("gift", "present"), FALLBACK_GIFT),
    (("activity", "do together"), FALLBACK_ACTIVITY),
    (("message", "text", "communicate"), FALLBACK_MESSAGE),
    (("analyze", "feedback"), FALLBACK_FEEDBACK),
]


def fallback_response(prompt: str) -> str:
    """Pick a canned response by keyword."""
    lower_prompt = prompt.lower()
    for keywords, response in FALLBACK_ROUTES:
        if any(keyword in lower_prompt for keyword in keywords):
            return response
    return FALLBACK_GENERAL


class AIClient:
    """
    Client for the chat completion endpoint with retries and local fallback.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        api_url: Optional[str] = None,
        mock_mode: bool = False,
    ):
        """
        Initialize AI client.

        Args:
            api_key: OpenRouter API key (default from config)
            model: Model identifier (default from config)
            api_url: Endpoint URL (default from config)
            mock_mode: Never call the network; always use fallbacks
        """
        self.api_key = api_key if api_key is not None else config.OPENROUTER_API_KEY
        self.model = model or config.OPENROUTER_MODEL
        self.api_url = api_url or config.OPENROUTER_API_URL
        self.timeout = config.API_TIMEOUT
        self.max_retries = config.MAX_RETRIES
        self.temperature = config.AI_TEMPERATURE
        self.max_tokens = config.AI_MAX_TOKENS
        self.mock_mode = mock_mode
        self.fallback_count = 0

        logger.info(f"AIClient initialized (model={self.model}, mock={mock_mode}, key={'yes' if self.api_key else 'no'})")

    def _build_payload(self, prompt: str, system_prompt: Optional[str]) -> Dict[str, Any]:
        messages: List[Dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})
        return {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }

    def _fallback(self, prompt: str, reason: str) -> str:
        self.fallback_count += 1
        logger.warning(f"Using local fallback response ({reason})")
        return fallback_response(prompt)

    def complete(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        """
        Generate text for ``prompt``. Never raises; failures use the fallback.
        """
        if self.mock_mode:
            return fallback_response(prompt)

        if not self.api_key:
            return self._fallback(prompt, "no API key configured")

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "X-Title": config.AI_APP_TITLE,
        }
        payload = self._build_payload(prompt, system_prompt)
        last_error = None

        for attempt in range(self.max_retries):
            try:
                response = requests.post(
                    self.api_url,
                    headers=headers,
                    json=payload,
                    timeout=self.timeout,
                )

                if response.status_code == 200:
                    content = self._extract_content(response.json())
                    if content:
                        return content
                    return self._fallback(prompt, "empty completion")

                elif response.status_code >= 500:
                    wait_time = 2 ** attempt
                    logger.warning(f"Server error {response.status_code}, retrying in {wait_time}s (attempt {attempt+1}/{self.max_retries})")
                    time.sleep(wait_time)
                    last_error = f"Server error: {response.status_code}"
                    continue

                elif response.status_code == 429:
                    wait_time = 5 * (attempt + 1)
                    logger.warning(f"Rate limited, waiting {wait_time}s")
                    time.sleep(wait_time)
                    last_error = "Rate limited"
                    continue

                else:
                    # 4xx other than 429 will not improve on retry
                    logger.error(f"AI API error {response.status_code}: {response.text[:200]}")
                    last_error = f"Client error: {response.status_code}"
                    break

            except requests.Timeout:
                logger.warning(f"Timeout on attempt {attempt+1}/{self.max_retries}")
                last_error = "Timeout"
                continue

            except (requests.RequestException, ValueError) as e:
                logger.error(f"Unexpected AI API error: {e}")
                last_error = str(e)
                break

        return self._fallback(prompt, f"all retries failed: {last_error}")

    def _extract_content(self, data: Any) -> str:
        """Pull choices[0].message.content out of a completion response."""
        try:
            return (data["choices"][0]["message"]["content"] or "").strip()
        except (KeyError, IndexError, TypeError):
            logger.warning(f"Unexpected completion format: {str(data)[:200]}")
            return ""


if __name__ == "__main__":
    client = AIClient(mock_mode=True)
    print(client.complete("Suggest a gift for my sister"))
