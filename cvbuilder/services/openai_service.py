# filename: openai_service.py
# location: cvbuilder/services/

import json
import logging
import time
from datetime import datetime, timezone

import openai
from flask import current_app
from openai import OpenAI

logger = logging.getLogger(__name__)

GPT_4 = "gpt-4"
GPT_4_TURBO = "gpt-4-turbo-preview"
GPT_3_5_TURBO = "gpt-3.5-turbo"

# USD per 1K tokens
TOKEN_PRICING = {
    GPT_4: {"input": 0.03, "output": 0.06},
    GPT_4_TURBO: {"input": 0.01, "output": 0.03},
    GPT_3_5_TURBO: {"input": 0.001, "output": 0.002},
}

RETRYABLE_STATUSES = (429, 500, 502, 503, 504)


class AIError(Exception):
    """A categorised failure talking to the model API.

    ``code`` is one of RATE_LIMIT, API_ERROR, TIMEOUT or USAGE_LIMIT.
    """

    def __init__(self, code, message, retry_after=None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.retry_after = retry_after


class AIUnavailableError(RuntimeError):
    """Raised when no API key is configured."""


def calculate_usage(usage, model):
    """Token counts and USD cost for a completion's ``usage`` block."""
    if usage is None:
        return {"promptTokens": 0, "completionTokens": 0, "totalTokens": 0, "cost": 0}

    pricing = TOKEN_PRICING.get(model, TOKEN_PRICING[GPT_3_5_TURBO])
    cost = (usage.prompt_tokens * pricing["input"] + usage.completion_tokens * pricing["output"]) / 1000
    return {
        "promptTokens": usage.prompt_tokens,
        "completionTokens": usage.completion_tokens,
        "totalTokens": usage.total_tokens,
        "cost": round(cost, 4),
    }


def ai_response(success, model, data=None, error=None, usage=None, code=None, retry_after=None):
    response = {
        "success": success,
        "model": model,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if data is not None:
        response["data"] = data
    if error is not None:
        response["error"] = error
    if usage is not None:
        response["usage"] = usage
    if code is not None:
        response["code"] = code
    if retry_after is not None:
        response["retryAfter"] = retry_after
    return response


def _is_retryable(error):
    if isinstance(error, (openai.APITimeoutError, openai.APIConnectionError)):
        return True
    if isinstance(error, openai.APIStatusError):
        return error.status_code in RETRYABLE_STATUSES
    return False


def categorize_error(error):
    """Map an exception from the OpenAI SDK to an :class:`AIError`."""
    if isinstance(error, AIError):
        return error

    if isinstance(error, openai.APITimeoutError):
        return AIError("TIMEOUT", "Request timed out. Please try again.")

    if isinstance(error, openai.APIStatusError):
        status = error.status_code
        if status == 429:
            retry_after = error.response.headers.get("retry-after") if error.response is not None else None
            try:
                retry_after = int(retry_after) if retry_after else 60
            except ValueError:
                retry_after = 60
            return AIError("RATE_LIMIT", "Rate limit exceeded. Please try again later.", retry_after)
        if status == 401:
            return AIError("API_ERROR", "Invalid API key or authentication failed.")
        if status >= 500:
            return AIError("API_ERROR", "OpenAI service temporarily unavailable.")

    if "timeout" in str(error).lower():
        return AIError("TIMEOUT", "Request timed out. Please try again.")

    return AIError("API_ERROR", str(error) or "An unexpected error occurred.")


class OpenAIClient:
    def __init__(self, api_key=None, model=GPT_4_TURBO, max_tokens=4000, temperature=0.7,
                 timeout=30.0, retry_attempts=3, retry_delay=1.0, client=None):
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay

        if client is not None:
            self.client = client
        elif api_key:
            # retries are handled by _execute_with_retry
            self.client = OpenAI(api_key=api_key, timeout=timeout, max_retries=0)
        else:
            self.client = None

    @property
    def is_configured(self):
        return self.client is not None

    def _ensure_client(self):
        if self.client is None:
            raise AIUnavailableError("OpenAI client not initialized - API key may be missing")

    def _execute_with_retry(self, operation):
        attempt = 1
        while True:
            try:
                return operation()
            except Exception as e:
                if attempt >= self.retry_attempts or not _is_retryable(e):
                    raise
                delay = self.retry_delay * (2 ** (attempt - 1))
                logger.warning(f"⚠️ OpenAI call failed ({e}); retry {attempt} in {delay}s")
                time.sleep(delay)
                attempt += 1

    @staticmethod
    def _messages(prompt, system_prompt=None):
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})
        return messages

    def generate_completion(self, prompt, model=None, max_tokens=None, temperature=None, system_prompt=None):
        """Plain chat completion. Returns an AI response dict whose data is the text."""
        self._ensure_client()
        model = model or self.model
        started = time.monotonic()

        try:
            completion = self._execute_with_retry(lambda: self.client.chat.completions.create(
                model=model,
                messages=self._messages(prompt, system_prompt),
                max_tokens=max_tokens or self.max_tokens,
                temperature=self.temperature if temperature is None else temperature,
                top_p=1,
                frequency_penalty=0,
                presence_penalty=0,
            ))
        except Exception as e:
            error = categorize_error(e)
            logger.error(f"❌ OpenAI completion failed: {error.code} {error.message}")
            return ai_response(False, model, error=error.message, code=error.code, retry_after=error.retry_after)

        usage = calculate_usage(completion.usage, model)
        logger.info(f"🤖 {model} completion: {usage['totalTokens']} tokens in {time.monotonic() - started:.2f}s")
        content = completion.choices[0].message.content if completion.choices else None
        return ai_response(True, model, data=(content or ""), usage=usage)

    def generate_structured_output(self, prompt, schema, model=None, system_prompt=None):
        """Force a function call whose arguments follow ``schema`` (JSON schema)."""
        self._ensure_client()
        model = model or self.model
        started = time.monotonic()

        try:
            completion = self._execute_with_retry(lambda: self.client.chat.completions.create(
                model=model,
                messages=self._messages(prompt, system_prompt),
                tools=[{
                    "type": "function",
                    "function": {
                        "name": "structured_output",
                        "description": "Generate structured output according to the schema",
                        "parameters": schema,
                    },
                }],
                tool_choice={"type": "function", "function": {"name": "structured_output"}},
                temperature=0.3,
            ))

            tool_calls = completion.choices[0].message.tool_calls if completion.choices else None
            if not tool_calls or not tool_calls[0].function.arguments:
                raise AIError("API_ERROR", "No structured output received")
            data = json.loads(tool_calls[0].function.arguments)
        except json.JSONDecodeError:
            logger.error("❌ OpenAI returned malformed structured output")
            return ai_response(False, model, error="Malformed structured output received")
        except Exception as e:
            error = categorize_error(e)
            logger.error(f"❌ OpenAI structured output failed: {error.code} {error.message}")
            return ai_response(False, model, error=error.message, code=error.code, retry_after=error.retry_after)

        usage = calculate_usage(completion.usage, model)
        logger.info(f"🤖 {model} structured output: {usage['totalTokens']} tokens in {time.monotonic() - started:.2f}s")
        return ai_response(True, model, data=data, usage=usage)

    def get_service_status(self):
        started = time.monotonic()
        if self.client is None:
            return {"isAvailable": False, "responseTime": 0}
        try:
            self.client.models.list()
            available = True
        except openai.OpenAIError as e:
            logger.warning(f"⚠️ OpenAI status check failed: {e}")
            available = False
        return {
            "isAvailable": available,
            "responseTime": int((time.monotonic() - started) * 1000),
        }


def get_openai_client():
    """Process-wide client built from the app config, created on first use."""
    client = current_app.extensions.get("openai_client")
    if client is None:
        client = OpenAIClient(
            api_key=current_app.config.get("OPENAI_API_KEY"),
            timeout=current_app.config.get("OPENAI_TIMEOUT", 30.0),
        )
        current_app.extensions["openai_client"] = client
    return client
