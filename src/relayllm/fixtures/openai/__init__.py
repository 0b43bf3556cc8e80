"""OpenAI test fixtures"""

# Simple chat request
OPENAI_CHAT_REQUEST = {
    "model": "gpt-4o-mini",
    "messages": [
        {
            "role": "system",
            "content": "You are a helpful assistant.",
        },
        {
            "role": "user",
            "content": "Hello, how are you?",
        },
    ],
    "temperature": 0.7,
    "max_tokens": 100,
    "stop": ["\n\n"],
}

# Simple chat response
OPENAI_CHAT_RESPONSE = {
    "id": "chatcmpl-123",
    "object": "chat.completion",
    "created": 1677652288,
    "model": "gpt-4o-mini",
    "choices": [
        {
            "index": 0,
            "message": {
                "role": "assistant",
                "content": "Hello! I'm doing well, thank you. How can I help you today?",
            },
            "finish_reason": "stop",
        }
    ],
    "usage": {
        "prompt_tokens": 20,
        "completion_tokens": 12,
        "total_tokens": 32,
    },
}

# Minimal payload used by the dispatcher walkthrough
OPENAI_HELLO_RESPONSE = {
    "id": "chatcmpl-hello",
    "object": "chat.completion",
    "model": "m1",
    "choices": [
        {
            "index": 0,
            "message": {"role": "assistant", "content": "hello"},
            "finish_reason": "stop",
        }
    ],
    "usage": {"prompt_tokens": 2, "completion_tokens": 3, "total_tokens": 5},
}

# Legacy completions
OPENAI_COMPLETION_RESPONSE = {
    "id": "cmpl-456",
    "object": "text_completion",
    "model": "gpt-3.5-turbo-instruct",
    "choices": [
        {"index": 0, "text": " world", "finish_reason": "length", "logprobs": None},
    ],
    "usage": {"prompt_tokens": 1, "completion_tokens": 1, "total_tokens": 2},
}

OPENAI_EMBEDDING_RESPONSE = {
    "object": "list",
    "model": "text-embedding-3-small",
    "data": [
        {"object": "embedding", "index": 0, "embedding": [0.1, -0.2, 0.3]},
        {"object": "embedding", "index": 1, "embedding": [0.0, 0.5, -0.5]},
    ],
    "usage": {"prompt_tokens": 8, "total_tokens": 8},
}

# Fine-tuning job, as returned on submission
OPENAI_FINE_TUNE_CREATED = {
    "object": "fine_tuning.job",
    "id": "ftjob-abc123",
    "model": "gpt-4o-mini-2024-07-18",
    "created_at": 1721764800,
    "fine_tuned_model": None,
    "status": "validating_files",
    "training_file": "file-abc123",
    "validation_file": None,
    "hyperparameters": {"n_epochs": 3},
    "error": None,
}

OPENAI_FINE_TUNE_SUCCEEDED = {
    "object": "fine_tuning.job",
    "id": "ftjob-abc123",
    "model": "gpt-4o-mini-2024-07-18",
    "fine_tuned_model": "ft:gpt-4o-mini-2024-07-18:org::9abc",
    "status": "succeeded",
    "training_file": "file-abc123",
    "hyperparameters": {"n_epochs": 3, "batch_size": 4, "learning_rate_multiplier": 1.8},
    "error": None,
}

OPENAI_FINE_TUNE_FAILED = {
    "object": "fine_tuning.job",
    "id": "ftjob-def456",
    "model": "gpt-4o-mini-2024-07-18",
    "fine_tuned_model": None,
    "status": "failed",
    "error": {"code": "invalid_training_file", "message": "Training file is invalid", "param": None},
}

# Error bodies
OPENAI_RATE_LIMIT_ERROR = {
    "error": {
        "message": "Rate limit reached for gpt-4o-mini",
        "type": "requests",
        "param": None,
        "code": "rate_limit_exceeded",
    }
}

OPENAI_INVALID_KEY_ERROR = {
    "error": {
        "message": "Incorrect API key provided",
        "type": "invalid_request_error",
        "param": None,
        "code": "invalid_api_key",
    }
}

# Streaming chunks, including the trailing usage-only chunk
OPENAI_STREAM_CHUNKS = [
    {
        "id": "chatcmpl-123",
        "object": "chat.completion.chunk",
        "model": "gpt-4o-mini",
        "choices": [{"index": 0, "delta": {"role": "assistant", "content": ""}, "finish_reason": None}],
    },
    {
        "id": "chatcmpl-123",
        "object": "chat.completion.chunk",
        "model": "gpt-4o-mini",
        "choices": [{"index": 0, "delta": {"content": "Hel"}, "finish_reason": None}],
    },
    {
        "id": "chatcmpl-123",
        "object": "chat.completion.chunk",
        "model": "gpt-4o-mini",
        "choices": [{"index": 0, "delta": {"content": "lo"}, "finish_reason": None}],
    },
    {
        "id": "chatcmpl-123",
        "object": "chat.completion.chunk",
        "model": "gpt-4o-mini",
        "choices": [{"index": 0, "delta": {}, "finish_reason": "stop"}],
    },
    {
        "id": "chatcmpl-123",
        "object": "chat.completion.chunk",
        "model": "gpt-4o-mini",
        "choices": [],
        "usage": {"prompt_tokens": 9, "completion_tokens": 2, "total_tokens": 11},
    },
]
