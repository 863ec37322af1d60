from prompt_enhancer.tokenizers.openai import num_tokens_consumed_from_request

__all__ = ["num_tokens_consumed_from_request"]
