"""Tests for loading memorization passages."""
from recallix.passages import DUMMY_PASSAGE, PassageLibrary


class TestPassageLibrary:
    def test_missing_directory_uses_dummy(self, tmp_path):
        directory = tmp_path / "passages"

        library = PassageLibrary(str(directory))

        assert directory.exists()
        assert list(library.passages) == [DUMMY_PASSAGE.id]

    def test_loads_csv_rows(self, tmp_path):
        (tmp_path / "poems.csv").write_text(
            'id,title,text\nraven,The Raven,"Once upon a midnight dreary."\n'
            ',,"While I pondered, weak and weary."\n',
            encoding="utf-8",
        )

        library = PassageLibrary(str(tmp_path))

        assert library.get_passage("raven").title == "The Raven"
        untitled = library.get_passage("poems_2")
        assert untitled.title == "Poems 2"
        assert untitled.text == "While I pondered, weak and weary."

    def test_skips_csv_without_text_column(self, tmp_path):
        (tmp_path / "broken.csv").write_text("word,translation\nHund,dog\n", encoding="utf-8")

        library = PassageLibrary(str(tmp_path))

        assert list(library.passages) == [DUMMY_PASSAGE.id]

    def test_loads_text_files(self, tmp_path):
        (tmp_path / "gettysburg_address.txt").write_text(
            "Four score and seven years ago.\n\nNow we are engaged.", encoding="utf-8"
        )
        (tmp_path / "empty.txt").write_text("  \n", encoding="utf-8")

        library = PassageLibrary(str(tmp_path))

        passage = library.get_passage("gettysburg_address")
        assert passage.title == "Gettysburg Address"
        assert library.get_passage("empty") is None

    def test_get_passages_sorted_with_word_counts(self, tmp_path):
        (tmp_path / "b.txt").write_text("one two three", encoding="utf-8")
        (tmp_path / "a.txt").write_text("one two", encoding="utf-8")

        passages = PassageLibrary(str(tmp_path)).get_passages()

        assert passages == [
            {"id": "a", "title": "A", "word_count": 2},
            {"id": "b", "title": "B", "word_count": 3},
        ]
