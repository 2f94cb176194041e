from conftest import card_positions, column_positions

from kanban.boards import BoardStore
from kanban.cards import CardStore
from kanban.columns import ColumnStore
from kanban.storage import BoardScope


def build_board(sessions, user="alice", name="Release"):
    scope = BoardScope.owner(user)
    board_id = BoardStore(scope, sessions).create_board(name)["board_id"]
    columns = ColumnStore(scope, sessions)
    cards = CardStore(scope, sessions)
    todo = columns.create_column(board_id, "Todo")["column_id"]
    done = columns.create_column(board_id, "Done")["column_id"]
    for title in ("one", "two", "three"):
        cards.create_card(todo, {"card_title": title}, creator_id=user)
    cards.create_card(done, {"card_title": "shipped", "priority": "High"}, creator_id=user)
    return board_id, todo, done


def test_get_board_nests_columns_and_cards(sessions):
    board_id, todo, done = build_board(sessions)
    board = BoardStore(BoardScope.owner("alice"), sessions).get_board(board_id)["board"]

    assert board["board_name"] == "Release"
    assert board["user_id"] == "alice"
    assert [c["id"] for c in board["columns"]] == [todo, done]
    assert [c["title"] for c in board["columns"][0]["cards"]] == ["one", "two", "three"]
    assert [c["position"] for c in board["columns"][0]["cards"]] == [1, 2, 3]
    assert board["columns"][1]["cards"][0]["priority"] == "High"
    assert board["columns"][1]["cards"][0]["created_by"] == "alice"


def test_get_board_reflects_moves(sessions):
    board_id, todo, done = build_board(sessions)
    cards = CardStore(BoardScope.owner("alice"), sessions)
    three = cards.list_cards(column_id=todo)["cards"][2]["id"]
    cards.move_card(three, done, 1)

    board = BoardStore(BoardScope.owner("alice"), sessions).get_board(board_id)["board"]
    assert [c["title"] for c in board["columns"][1]["cards"]] == ["three", "shipped"]


def test_empty_board_has_no_columns(boards):
    board_id = boards.create_board("Empty")["board_id"]
    assert boards.get_board(board_id)["board"]["columns"] == []


def test_other_users_board_is_not_found(sessions):
    board_id, _, _ = build_board(sessions)
    bob = BoardStore(BoardScope.owner("bob"), sessions)
    assert bob.get_board(board_id).message == "Board not found"
    assert not bob.rename_board(board_id, "mine now").success
    assert not bob.delete_board(board_id).success


def test_list_boards_only_returns_own_newest_first(sessions):
    first, _, _ = build_board(sessions, name="First")
    second, _, _ = build_board(sessions, name="Second")
    build_board(sessions, user="bob", name="Bob's")

    boards = BoardStore(BoardScope.owner("alice"), sessions).list_boards()["boards"]
    assert [b["id"] for b in boards] == [second, first]
    assert all(len(b["columns"]) == 2 for b in boards)
    assert sum(len(c["cards"]) for c in boards[0]["columns"]) == 4


def test_list_boards_empty(sessions):
    assert BoardStore(BoardScope.owner("nobody"), sessions).list_boards()["boards"] == []


def test_rename_board(sessions):
    board_id, _, _ = build_board(sessions)
    store = BoardStore(BoardScope.owner("alice"), sessions)
    assert store.rename_board(board_id, "Renamed")["board_name"] == "Renamed"
    assert store.get_board(board_id)["board"]["board_name"] == "Renamed"


def test_delete_board_cascades(sessions):
    board_id, todo, done = build_board(sessions)
    store = BoardStore(BoardScope.owner("alice"), sessions)
    assert store.delete_board(board_id).success
    assert not store.get_board(board_id).success
    assert column_positions(sessions, board_id) == []
    assert card_positions(sessions, todo) == []
    assert card_positions(sessions, done) == []


def test_main_board_is_created_once(sessions):
    store = BoardStore(BoardScope.main(), sessions)
    assert store.get_main_board().message == "Main board not found"
    board_id = store.ensure_main_board()
    assert store.ensure_main_board() == board_id
    main = store.get_main_board()["board"]
    assert main["id"] == board_id
    assert main["user_id"] is None


def test_main_board_shares_store_logic(sessions):
    main_id = BoardStore(BoardScope.main(), sessions).ensure_main_board()
    columns = ColumnStore(BoardScope.main(), sessions)
    a = columns.create_column(main_id, "A")["column_id"]
    b = columns.create_column(main_id, "B")["column_id"]
    columns.reorder_column(b, 1)
    assert column_positions(sessions, main_id) == [(b, 1), (a, 2)]

    # A user scope cannot reach the main board, and the main scope cannot reach user boards.
    assert not ColumnStore(BoardScope.owner("alice"), sessions).delete_column(a).success
    _, todo, _ = build_board(sessions)
    assert not columns.rename_column(todo, "hijack").success


def test_rename_main_board(sessions):
    store = BoardStore(BoardScope.main(), sessions)
    store.ensure_main_board()
    assert store.rename_main_board("Team Board").success
    assert store.get_main_board()["board"]["board_name"] == "Team Board"


def test_boards_need_an_owner(sessions):
    for scope in (BoardScope.main(), BoardScope.unrestricted()):
        result = BoardStore(scope, sessions).create_board("Stray")
        assert result.to_dict() == {"success": False, "message": "Board owner required"}
    assert BoardStore(BoardScope.main(), sessions).main_board_id() is None
