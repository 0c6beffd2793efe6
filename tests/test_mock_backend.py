import unittest

import httpx

from mock_backend.main import app
from mock_backend.database import cart_db, coupon_db, product_db


class MockBackendTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        product_db.reset()
        cart_db.reset()
        coupon_db.reset()
        self.http = httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app),
            base_url="http://testserver",
        )
        self.auth = {"Authorization": "Bearer user-1"}

    async def asyncTearDown(self):
        await self.http.aclose()

    async def test_health(self):
        response = await self.http.get("/health")

        self.assertEqual(response.json()["status"], "healthy")

    async def test_cart_requires_bearer_token(self):
        response = await self.http.get("/api/cart")

        self.assertEqual(response.status_code, 401)
        self.assertEqual(
            response.json(),
            {"statusCode": 401, "message": "Authentication required", "data": None},
        )

    async def test_unknown_product(self):
        response = await self.http.get("/api/products/999")

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["message"], "Product not found")

    async def test_product_is_camel_cased(self):
        response = await self.http.get("/api/products/3")

        data = response.json()["data"]
        self.assertEqual(data["sellingPrice"], 200)
        self.assertEqual(data["discountType"], "percentage")
        self.assertTrue(data["isActive"])

    async def test_adding_same_product_sums_quantity(self):
        await self.http.post("/api/cart/items", json={"productId": 1, "quantity": 2}, headers=self.auth)
        response = await self.http.post(
            "/api/cart/items", json={"productId": 1, "quantity": 3}, headers=self.auth
        )

        items = response.json()["data"]["items"]
        self.assertEqual(len(items), 1)
        self.assertEqual(items[0]["quantity"], 5)
        self.assertEqual(items[0]["productId"], 1)

    async def test_carts_are_per_user(self):
        await self.http.post("/api/cart/items", json={"productId": 1}, headers=self.auth)

        response = await self.http.get("/api/cart", headers={"Authorization": "Bearer user-2"})

        self.assertEqual(response.json()["data"]["items"], [])

    async def test_stock_is_enforced(self):
        response = await self.http.post(
            "/api/cart/items", json={"productId": 4, "quantity": 9}, headers=self.auth
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["message"], "Insufficient stock. Available: 8")

    async def test_zero_quantity_is_invalid(self):
        response = await self.http.post(
            "/api/cart/items", json={"productId": 1, "quantity": 0}, headers=self.auth
        )

        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["statusCode"], 422)

    async def test_update_missing_row(self):
        response = await self.http.patch("/api/cart/items/42", json={"quantity": 2}, headers=self.auth)

        self.assertEqual(response.status_code, 404)

    async def test_remove_missing_row_is_a_no_op(self):
        response = await self.http.delete("/api/cart/items/42", headers=self.auth)

        self.assertEqual(response.status_code, 200)

    async def test_cart_rows_show_current_product(self):
        await self.http.post("/api/cart/items", json={"productId": 2}, headers=self.auth)
        product_db.update_product(2, selling_price=350)

        response = await self.http.get("/api/cart", headers=self.auth)

        self.assertEqual(response.json()["data"]["items"][0]["product"]["sellingPrice"], 350)

    async def test_validate_unknown_coupon(self):
        response = await self.http.post("/api/coupons/validate", json={"code": "NOPE"})

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["message"], "Invalid coupon code")

    async def test_percentage_coupon(self):
        response = await self.http.post("/api/coupons/apply", json={"code": "good10", "subtotal": 1100})

        data = response.json()["data"]
        self.assertEqual(data, {"couponId": 2, "code": "GOOD10", "discountValue": 110.0})

    async def test_coupon_discount_is_capped(self):
        response = await self.http.post("/api/coupons/apply", json={"code": "WELCOME20", "subtotal": 5000})

        self.assertEqual(response.json()["data"]["discountValue"], 200)

    async def test_fixed_coupon_never_exceeds_subtotal(self):
        response = await self.http.post("/api/coupons/apply", json={"code": "SAVE50", "subtotal": 30})

        self.assertEqual(response.json()["data"]["discountValue"], 30)

    async def test_apply_attaches_coupon_for_users(self):
        await self.http.post("/api/coupons/apply", json={"code": "SAVE50", "subtotal": 500}, headers=self.auth)

        response = await self.http.get("/api/cart", headers=self.auth)

        self.assertEqual(
            response.json()["data"]["coupon"],
            {"id": 1, "code": "SAVE50", "discountValue": 50.0},
        )

    async def test_remove_coupon_detaches_it(self):
        await self.http.post("/api/coupons/apply", json={"code": "SAVE50", "subtotal": 500}, headers=self.auth)

        response = await self.http.delete("/api/cart/coupon", headers=self.auth)

        self.assertEqual(response.status_code, 200)
        self.assertIsNone(response.json()["data"]["coupon"])
        self.assertIsNone(cart_db.get_or_create_cart("user-1").coupon)

    async def test_clear_cart_drops_coupon(self):
        await self.http.post("/api/cart/items", json={"productId": 1}, headers=self.auth)
        await self.http.post("/api/coupons/apply", json={"code": "SAVE50", "subtotal": 500}, headers=self.auth)

        response = await self.http.delete("/api/cart", headers=self.auth)

        data = response.json()["data"]
        self.assertEqual(data["items"], [])
        self.assertIsNone(data["coupon"])


if __name__ == "__main__":
    unittest.main()
