"""Vertex AI test fixtures"""

VERTEX_AI_CHAT_RESPONSE = {
    "candidates": [
        {
            "content": {
                "role": "model",
                "parts": [{"text": "Hello! How can I help you today?"}],
            },
            "finishReason": "STOP",
            "index": 0,
        }
    ],
    "usageMetadata": {
        "promptTokenCount": 10,
        "candidatesTokenCount": 9,
        "totalTokenCount": 19,
    },
    "modelVersion": "gemini-1.5-pro-002",
}

VERTEX_AI_SAFETY_RESPONSE = {
    "candidates": [
        {
            "content": {"role": "model", "parts": []},
            "finishReason": "SAFETY",
            "index": 0,
        }
    ],
    "usageMetadata": {"promptTokenCount": 7, "totalTokenCount": 7},
}

VERTEX_AI_BLOCKED_PROMPT_RESPONSE = {
    "promptFeedback": {"blockReason": "SAFETY"},
    "usageMetadata": {"promptTokenCount": 7, "totalTokenCount": 7},
}

VERTEX_AI_EMBEDDING_RESPONSE = {
    "predictions": [
        {
            "embeddings": {
                "values": [0.01, 0.02, -0.03],
                "statistics": {"token_count": 4, "truncated": False},
            }
        },
        {
            "embeddings": {
                "values": [0.2, 0.1, 0.0],
                "statistics": {"token_count": 3, "truncated": False},
            }
        },
    ],
    "metadata": {"billableCharacterCount": 30},
}

VERTEX_AI_PREDICT_RESPONSE = {
    "predictions": [
        {"label": "positive", "score": 0.93},
        "free-form text prediction",
    ],
    "deployedModelId": "1234567890",
    "model": "projects/p/locations/us-central1/models/987",
}

VERTEX_AI_TUNING_JOB_CREATED = {
    "name": "projects/demo-project/locations/us-central1/tuningJobs/4321",
    "tunedModelDisplayName": "support-bot",
    "baseModel": "gemini-1.5-flash-002",
    "supervisedTuningSpec": {
        "trainingDatasetUri": "gs://bucket/train.jsonl",
        "hyperParameters": {"epochCount": "4"},
    },
    "state": "JOB_STATE_PENDING",
    "createTime": "2024-10-01T12:00:00Z",
}

VERTEX_AI_TUNING_JOB_SUCCEEDED = {
    "name": "projects/demo-project/locations/us-central1/tuningJobs/4321",
    "baseModel": "gemini-1.5-flash-002",
    "state": "JOB_STATE_SUCCEEDED",
    "tunedModel": {
        "model": "projects/demo-project/locations/us-central1/models/555@1",
        "endpoint": "projects/demo-project/locations/us-central1/endpoints/777",
    },
}

VERTEX_AI_QUOTA_ERROR = {
    "error": {
        "code": 429,
        "message": "Quota exceeded for aiplatform.googleapis.com/generate_content_requests",
        "status": "RESOURCE_EXHAUSTED",
    }
}

# streamGenerateContent?alt=sse chunks
VERTEX_AI_STREAM_CHUNKS = [
    {
        "candidates": [{"content": {"role": "model", "parts": [{"text": "The"}]}, "index": 0}],
        "usageMetadata": {"promptTokenCount": 6, "candidatesTokenCount": 1, "totalTokenCount": 7},
    },
    {
        "candidates": [{"content": {"role": "model", "parts": [{"text": " sky"}]}, "index": 0}],
        "usageMetadata": {"promptTokenCount": 6, "candidatesTokenCount": 2, "totalTokenCount": 8},
    },
    {
        "candidates": [
            {
                "content": {"role": "model", "parts": [{"text": " is blue."}]},
                "finishReason": "STOP",
                "index": 0,
            }
        ],
        "usageMetadata": {"promptTokenCount": 6, "candidatesTokenCount": 5, "totalTokenCount": 11},
        "modelVersion": "gemini-1.5-pro-002",
    },
]
