from utils.formatting import escape_html, notification_text, recipe_card, recipe_changes

SOUP = {
    "title": "Борщ",
    "outputWeight": "1000",
    "ingredients": [
        {"name": "Свекла", "amount": "200", "unit": "г"},
        {"name": "Капуста", "amount": "300", "unit": "г"},
    ],
}


def test_escape_html():
    assert escape_html("<b>&") == "&lt;b&gt;&amp;"
    assert escape_html(None) == ""
    assert escape_html(5) == "5"


def test_recipe_card():
    text = recipe_card(SOUP)
    assert text.startswith("📖 <b>Борщ</b>\n\n🛒 Ингредиенты:")
    assert "• Свекла: 200 г" in text
    assert "• Капуста: 300 г" in text


def test_recipe_card_escapes_title():
    assert "<b>Fish &amp; Chips</b>" in recipe_card({"title": "Fish & Chips"})


class TestRecipeChanges:
    def test_no_changes(self):
        assert recipe_changes(SOUP, dict(SOUP)) == []

    def test_title_and_output(self):
        new = dict(SOUP, title="Борщ украинский", outputWeight="1200")
        changes = recipe_changes(SOUP, new)
        assert changes[0] == "Название: Борщ -> <b>Борщ украинский</b>"
        assert changes[1] == "Выход: 1000 -> <b>1200</b>"

    def test_ingredients(self):
        new = dict(
            SOUP,
            ingredients=[
                {"name": " Свекла ", "amount": "250", "unit": "г"},
                {"name": "Морковь", "amount": "100", "unit": "г"},
            ],
        )
        changes = recipe_changes(SOUP, new)
        assert " Свекла : 200 г -> <b>250 г</b>" in changes
        assert "Добавлен: <b>Морковь</b> (100 г)" in changes
        assert "Удален: Капуста" in changes


def test_notification_text():
    text = notification_text("update", "Борщ", ["Выход: 1 -> <b>2</b>"])
    assert text == "✏️ Техкарта обновлена: <b>Борщ</b>\n\n• Выход: 1 -> <b>2</b>"
    assert notification_text("delete", "<x>") == "🗑 Техкарта удалена: <b>&lt;x&gt;</b>"
