"""ABI of the certification contract functions used by the client."""


def _uint_fn(name: str) -> dict:
    return {
        "type": "function",
        "name": name,
        "stateMutability": "nonpayable",
        "inputs": [{"name": "requestId", "type": "uint256"}],
        "outputs": [],
    }


CERTIFICATION_ABI = [
    {
        "type": "function",
        "name": "createRequest",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "requestId", "type": "uint256"},
            {"name": "productName", "type": "string"},
            {"name": "description", "type": "string"},
            {"name": "mediaHashes", "type": "string[]"},
        ],
        "outputs": [],
    },
    _uint_fn("markInProgress"),
    _uint_fn("approveRequest"),
    _uint_fn("rejectRequest"),
    _uint_fn("issueCertificate"),
    _uint_fn("revertRequest"),
    {
        "type": "event",
        "name": "RequestCreated",
        "anonymous": False,
        "inputs": [
            {"name": "requestId", "type": "uint256", "indexed": True},
            {"name": "farmer", "type": "address", "indexed": True},
        ],
    },
]
