"""
Static data served when the database is unavailable
"""

from typing import Any, Dict, List

DEFAULT_VEHICLE_DATA: Dict[str, List[Dict[str, Any]]] = {
    "FOUR_WHEELER": [
        {
            "name": "Maruti Suzuki",
            "models": [
                {"name": "Swift", "variants": ["LXi", "VXi", "VXi (O)", "ZXi", "ZXi+"]},
                {"name": "Baleno", "variants": ["Sigma", "Delta", "Zeta", "Alpha"]},
                {"name": "Dzire", "variants": ["LXi", "VXi", "ZXi", "ZXi+"]},
            ],
        },
        {
            "name": "Hyundai",
            "models": [
                {"name": "i20", "variants": ["Magna", "Sportz", "Asta", "Asta (O)"]},
                {"name": "Verna", "variants": ["S", "SX", "SX (O)", "SX Turbo"]},
            ],
        },
        {
            "name": "Tata",
            "models": [
                {"name": "Nexon", "variants": ["XE", "XM", "XZ+", "XZ+ (O)"]},
                {"name": "Safari", "variants": ["XE", "XM", "XZ", "XZ+"]},
            ],
        },
    ],
    "TWO_WHEELER": [
        {
            "name": "Honda",
            "models": [
                {"name": "Activa 6G", "variants": ["Standard", "DLX", "Smart"]},
                {"name": "Shine", "variants": ["Standard", "SP", "SP (Drum)"]},
            ],
        },
        {
            "name": "Bajaj",
            "models": [
                {"name": "Pulsar 150", "variants": ["Standard", "DTS-i", "NS"]},
                {"name": "CT 100", "variants": ["Standard", "X"]},
            ],
        },
    ],
}

FALLBACK_VEHICLES: List[Dict[str, Any]] = [
    {
        "id": 1,
        "make": "Maruti Suzuki",
        "model": "Swift",
        "year": 2022,
        "price": 650000,
        "mileage": 18000,
        "fuelType": "Petrol",
        "transmission": "Manual",
        "location": "Mumbai",
        "city": "Mumbai",
        "state": "MH",
        "sellerEmail": "demo@reride.com",
        "images": ["https://picsum.photos/800/600?random=1"],
        "description": "Well maintained Swift in excellent condition",
        "status": "published",
        "isFeatured": True,
        "views": 150,
        "inquiriesCount": 8,
        "certificationStatus": "none",
        "category": "FOUR_WHEELER",
        "features": ["Power Steering", "Air Conditioning"],
        "color": "White",
        "noOfOwners": 1,
        "registrationYear": 2022,
        "rto": "MH01",
    }
]

FALLBACK_FAQS: List[Dict[str, Any]] = []
