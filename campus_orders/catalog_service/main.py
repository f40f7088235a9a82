# campus_orders/catalog_service/main.py
from fastapi import FastAPI, HTTPException

app = FastAPI(title="Catalog Service (dev mock)")


CONCESSIONS = {
    1: {"id": 1, "name": "Kusina ni Aling Nena", "concessionaire_id": 101, "receipt_timer": "00:15:00"},
    2: {"id": 2, "name": "Kape Kanto", "concessionaire_id": 102, "receipt_timer": "00:10:00"},
}

ITEMS = {
    1: {
        "id": 1,
        "name": "Silog Meal",
        "price": "0.00",
        "concession_id": 1,
        "available": True,
        "variation_groups": [
            {
                "id": 1,
                "name": "Meat",
                "required_selection": True,
                "min_selection": 1,
                "multiple_selection": False,
                "max_selection": 1,
                "variations": [
                    {"id": 10, "name": "Tapa", "price": "85.00"},
                    {"id": 11, "name": "Longganisa", "price": "75.00"},
                    {"id": 12, "name": "Tocino", "price": "70.00"},
                ],
            },
            {
                "id": 2,
                "name": "Add-ons",
                "required_selection": False,
                "min_selection": 0,
                "multiple_selection": True,
                "max_selection": 2,
                "variations": [
                    {"id": 20, "name": "Extra rice", "price": "15.00"},
                    {"id": 21, "name": "Fried egg", "price": "12.00"},
                ],
            },
        ],
    },
    2: {"id": 2, "name": "Pancit Canton", "price": "55.00", "concession_id": 1, "available": True},
    3: {
        "id": 3,
        "name": "Iced Coffee",
        "price": "60.00",
        "concession_id": 2,
        "available": True,
        "variation_groups": [
            {
                "id": 3,
                "name": "Size",
                "required_selection": True,
                "multiple_selection": False,
                "variations": [
                    {"id": 30, "name": "Regular", "price": "0.00"},
                    {"id": 31, "name": "Large", "price": "20.00"},
                ],
            },
        ],
    },
}


@app.get("/items/{item_id}")
def get_item(item_id: int):
    item = ITEMS.get(item_id)
    if not item:
        raise HTTPException(status_code=404, detail="Item not found")
    return item


@app.get("/concessions/{concession_id}")
def get_concession(concession_id: int):
    concession = CONCESSIONS.get(concession_id)
    if not concession:
        raise HTTPException(status_code=404, detail="Concession not found")
    return concession
