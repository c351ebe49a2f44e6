"""
Health Check

Resolves which configured models the servers actually serve, and performs
an end-to-end connection test (model listing plus a short chat).
"""

from __future__ import annotations

import time
from typing import Callable

from llm_doc_bench.domain.entities import HealthCheckResult
from llm_doc_bench.domain.value_objects import ChatMessage, ConversationPlan, GenerationOptions
from llm_doc_bench.infrastructure.model_clients.base import ModelClient


CONNECTION_TEST_MESSAGE = "Hello"
CONNECTION_TEST_OPTIONS = GenerationOptions(max_tokens=10)


class NoModelsAvailableError(Exception):
    """None of the configured models is served"""
    pass


async def check_model(
    model_name: str,
    create_client_fn: Callable[[str], ModelClient],
) -> tuple[HealthCheckResult, list[str]]:
    """
    Check whether the server behind a model's client lists that model

    Returns:
        (check result, model ids reported by the server)
    """
    try:
        client = create_client_fn(model_name)
    except Exception as e:
        return HealthCheckResult(model_name=model_name, success=False, error=f"Client setup: {e}"), []

    start_time = time.perf_counter()
    try:
        served = await client.list_models()
    except Exception as e:
        return HealthCheckResult(model_name=model_name, success=False, error=str(e)), []
    finally:
        await client.aclose()
    latency_ms = int((time.perf_counter() - start_time) * 1000)

    if model_name in served:
        return HealthCheckResult(model_name=model_name, success=True, latency_ms=latency_ms), served
    return HealthCheckResult(
        model_name=model_name,
        success=False,
        latency_ms=latency_ms,
        error="Model is not served by the configured server",
    ), served


async def check_all_models(
    models: list[str],
    create_client_fn: Callable[[str], ModelClient],
) -> tuple[list[str], list[HealthCheckResult]]:
    """
    Check every configured model

    Args:
        models: Configured model names
        create_client_fn: Function to create a model client

    Returns:
        tuple: (available models in configured order, all check results)
    """
    print("=== Model Availability Check ===\n")
    results = []
    available_models = []
    reported: list[str] = []

    for model_name in models:
        print(f"  {model_name}... ", end="", flush=True)
        result, served = await check_model(model_name, create_client_fn)
        results.append(result)
        reported.extend(m for m in served if m not in reported)

        if result.success:
            print(f"OK ({result.latency_ms}ms)")
            available_models.append(model_name)
        else:
            # Display only the first 100 characters of the error message
            error_short = result.error[:100] if result.error else "Unknown error"
            print("UNAVAILABLE")
            print(f"    Error: {error_short}")

    if reported:
        print(f"\n  Available models: {', '.join(reported)}")
    print()
    return available_models, results


async def resolve_available_models(
    models: list[str],
    create_client_fn: Callable[[str], ModelClient],
) -> list[str]:
    """
    Configured models that the server reports, in configured order

    Raises:
        NoModelsAvailableError: If no configured model is available
    """
    available_models, _ = await check_all_models(models, create_client_fn)
    if not available_models:
        raise NoModelsAvailableError(
            "No models available for testing. Please check your configuration "
            f"(configured: {', '.join(models) or 'none'})."
        )
    return available_models


async def check_connection(
    model_name: str,
    create_client_fn: Callable[[str], ModelClient],
) -> tuple[list[str], HealthCheckResult]:
    """
    Test the models endpoint and a short chat completion

    Returns:
        (model ids reported by the server, chat check result)
    """
    try:
        client = create_client_fn(model_name)
    except Exception as e:
        return [], HealthCheckResult(model_name=model_name, success=False, error=f"Client setup: {e}")

    try:
        try:
            served = await client.list_models()
        except Exception as e:
            return [], HealthCheckResult(model_name=model_name, success=False, error=f"Models endpoint: {e}")

        plan = ConversationPlan(
            messages=(ChatMessage(role="user", content=CONNECTION_TEST_MESSAGE),),
            source_prompts={"user": None},
        )
        try:
            response = await client.chat(plan, CONNECTION_TEST_OPTIONS)
        except Exception as e:
            return served, HealthCheckResult(model_name=model_name, success=False, error=f"Chat endpoint: {e}")

        if not response.content:
            return served, HealthCheckResult(
                model_name=model_name,
                success=False,
                latency_ms=response.latency_ms,
                error="Chat completions returned an empty response",
            )
        return served, HealthCheckResult(model_name=model_name, success=True, latency_ms=response.latency_ms)
    finally:
        await client.aclose()
