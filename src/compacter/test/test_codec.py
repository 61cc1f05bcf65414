import pickle
import unittest

from sqlalchemy import Column, ForeignKey, Integer, String, inspect
from sqlalchemy.orm import declarative_base, relationship

from compacter.cache import MemoryCache
from compacter.codec import Compacter, Marker, RecordDump, materialize
from compacter.db import Comment, Post
from compacter.exceptions import (
    CyclicGraphError,
    MalformedDumpError,
    UnknownModelError,
)
from compacter.schema import ModelRegistry, column_keys

OldBase = declarative_base()
NewBase = declarative_base()
GraphBase = declarative_base()


def make_widget(base, **columns):
    # same class name on both sides, like one model before and after a migration
    return type(
        "Widget",
        (base,),
        dict(__tablename__="widget", id=Column(Integer, primary_key=True), **columns),
    )


OldWidget = make_widget(OldBase, a=Column(String), b=Column(String), c=Column(String))
NewWidget = make_widget(NewBase, b=Column(String), c=Column(String), d=Column(String))


class Node(GraphBase):
    """Self-referential without an inverse"""

    __tablename__ = "node"
    id = Column(Integer, primary_key=True)
    parent_id = Column(None, ForeignKey("node.id"))
    parent = relationship("Node", remote_side=[id])


def make_post(id, title="title", body="body", draft=False, **kwargs):
    return Post(id=id, title=title, body=body, draft=draft, **kwargs)


def make_comment(id, post_id=None, body="comment"):
    return Comment(id=id, body=body, post_id=post_id)


def round_trip(data):
    cache = MemoryCache()
    cache.write("key", Compacter(data))
    return cache.read("key").data


class TestRoundTrip(unittest.TestCase):
    def test_record_without_relationships(self):
        post = make_post(1, title="Hello", body="World")

        restored = round_trip(post)

        self.assertIsInstance(restored, Post)
        self.assertIsNot(restored, post)
        self.assertEqual(post.as_dict(), restored.as_dict())
        self.assertEqual("Hello", restored.title)
        # complete primary key: detached, as if its session was closed
        self.assertTrue(inspect(restored).detached)

    def test_one_to_many(self):
        comments = [make_comment(10, 1, "first"), make_comment(11, 1, "second")]
        post = make_post(1, comments=comments)

        restored = round_trip(post)

        self.assertEqual(2, len(restored.comments))
        self.assertEqual(
            [comment.as_dict() for comment in comments],
            [comment.as_dict() for comment in restored.comments],
        )
        for comment in restored.comments:
            self.assertIs(restored, comment.post)

    def test_bidirectional_cycle(self):
        comment = make_comment(10, 1)
        post = make_post(1, comments=[comment])
        # both sides are loaded
        self.assertIs(post, comment.post)

        dumped = Compacter(post).dump()["data"]

        self.assertEqual(["comments"], list(dumped.relations))
        self.assertEqual({}, dumped.relations["comments"][0].relations)

        restored = round_trip(post)
        self.assertIs(restored, restored.comments[0].post)
        self.assertIs(restored.comments[0], restored.comments[0].post.comments[0])

    def test_cycle_from_the_scalar_side(self):
        comment = make_comment(10, 1)
        make_post(1, comments=[comment])

        dumped = Compacter(comment).dump()["data"]
        self.assertEqual(["post"], list(dumped.relations))
        self.assertEqual({}, dumped.relations["post"].relations)

        restored = round_trip(comment)
        self.assertEqual(1, restored.post.id)
        # only part of post.comments is known, so it stays unloaded
        self.assertIn("comments", inspect(restored.post).unloaded)

    def test_nested_structures(self):
        post = make_post(1)
        data = {
            "post": post,
            "stats": [(post, 3), {"ids": {1, 2}}],
            "frozen": frozenset([4]),
            None: [None, "x"],
        }

        restored = round_trip(data)

        self.assertEqual({"post", "stats", "frozen", None}, set(restored))
        self.assertEqual(1, restored["post"].id)
        self.assertIsInstance(restored["stats"][0], tuple)
        self.assertEqual(1, restored["stats"][0][0].id)
        self.assertEqual(3, restored["stats"][0][1])
        self.assertEqual({"ids": {1, 2}}, restored["stats"][1])
        self.assertEqual(frozenset([4]), restored["frozen"])
        self.assertEqual([None, "x"], restored[None])

    def test_records_as_keys(self):
        restored = round_trip({make_post(1): "a", make_post(2): "b"})

        self.assertEqual({1: "a", 2: "b"}, {post.id: value for post, value in restored.items()})

    def test_plain_data_passes_through(self):
        data = {"a": 1, "b": [1, 2.5, "three"], "c": {"d": None}, 4: (True, False)}

        self.assertEqual(data, round_trip(data))
        self.assertEqual(data, Compacter(data).dump()["data"])


class TestDump(unittest.TestCase):
    def test_schema_is_written_once(self):
        posts = [make_post(i) for i in range(1, 101)]

        envelope = Compacter(posts).dump()

        self.assertEqual(["Post"], list(envelope["attributes"]))
        self.assertEqual(column_keys(Post), envelope["attributes"]["Post"])
        self.assertEqual(100, len(envelope["data"]))
        for dump in envelope["data"]:
            self.assertIsInstance(dump, RecordDump)
            self.assertEqual(len(column_keys(Post)), len(dump.values))

    def test_attributes_cover_every_column(self):
        first = make_post(1)
        # draft isn't loaded on this one
        second = Post(id=2, title="t", body="b")

        envelope = Compacter([first, second]).dump()

        names = envelope["attributes"]["Post"]
        self.assertEqual(column_keys(Post), names)
        self.assertEqual(Marker.UNSET, envelope["data"][1].values[names.index("draft")])
        # not loaded on either record
        self.assertEqual(Marker.UNSET, envelope["data"][0].values[names.index("created_at")])

        restored = round_trip([first, second])
        self.assertFalse(restored[0].draft)
        self.assertIn("draft", inspect(restored[1]).unloaded)
        self.assertIn("created_at", inspect(restored[0]).unloaded)
        self.assertEqual("t", restored[1].title)

    def test_new_record_before_stored_one(self):
        new = Post(title="new", body="b", draft=False)
        stored = make_post(5, title="stored")

        restored = round_trip([new, stored])

        self.assertIsNone(inspect(restored[0]).key)
        self.assertEqual("new", restored[0].title)
        self.assertEqual(5, restored[1].id)
        self.assertEqual("stored", restored[1].title)
        self.assertTrue(inspect(restored[1]).detached)

    def test_partly_loaded_record_first(self):
        partial = materialize(Post, {"id": 7, "draft": False})
        full = make_post(8, title="full", body="everything")

        restored = round_trip([partial, full])

        self.assertEqual(7, restored[0].id)
        for key in ("title", "body"):
            self.assertIn(key, inspect(restored[0]).unloaded)
        self.assertEqual(
            {"id": 8, "title": "full", "body": "everything", "draft": False},
            restored[1].as_dict(),
        )

    def test_excluded_record_in_mapping(self):
        data = {"kept": make_post(1), "draft": make_post(2, draft=True)}

        dumped = Compacter(data).dump()["data"]

        self.assertEqual(["kept"], list(dumped))
        self.assertEqual(["kept"], list(round_trip(data)))

    def test_excluded_record_as_key(self):
        self.assertEqual({}, Compacter({make_post(2, draft=True): 1}).dump()["data"])

    def test_excluded_record_in_sequence(self):
        data = [make_post(1), make_post(2, draft=True), make_post(3)]

        restored = round_trip(data)

        self.assertEqual([1, 3], [post.id for post in restored])

    def test_excluded_root(self):
        self.assertIsNone(round_trip(make_post(1, draft=True)))

    def test_unloaded_relationships_are_left_alone(self):
        post = make_post(1)
        self.assertIn("comments", inspect(post).unloaded)

        dumped = Compacter(post).dump()["data"]

        self.assertEqual({}, dumped.relations)
        self.assertIn("comments", inspect(post).unloaded)
        self.assertIn("comments", inspect(round_trip(post)).unloaded)

    def test_loaded_empty_relationships(self):
        post = make_post(1, comments=[])
        comment = make_comment(10)
        comment.post = None

        self.assertEqual([], round_trip(post).comments)
        restored = round_trip(comment)
        self.assertIn("post", inspect(restored).dict)
        self.assertIsNone(restored.post)

    def test_input_is_not_modified(self):
        comments = [make_comment(10, 1), make_comment(11, 1)]
        post = make_post(1, comments=comments)
        data = [post, {"post": post}]

        Compacter(data).dump()

        self.assertEqual([post, {"post": post}], data)
        self.assertEqual(comments, post.comments)
        self.assertEqual("title", post.title)

    def test_dumps_are_independent(self):
        post = make_post(1, comments=[make_comment(10, 1)])
        compacter = Compacter(post)

        first = compacter.dump()
        second = compacter.dump()

        self.assertEqual(first, second)
        self.assertIsNot(first["attributes"], second["attributes"])
        self.assertEqual(first, Compacter(post).dump())

    def test_cycle_without_inverse(self):
        first, second = Node(id=1), Node(id=2)
        first.parent = second
        second.parent = first

        with self.assertRaises(CyclicGraphError) as ctx:
            Compacter(first).dump()
        self.assertEqual(["Node", "Node", "Node"], ctx.exception.path)

    def test_dump_is_pickle_state(self):
        post = make_post(1)
        compacter = Compacter([post])

        restored = pickle.loads(pickle.dumps(compacter))

        self.assertEqual(compacter.dump()["attributes"], restored.dumped_attributes)
        self.assertEqual(["Post"], list(restored.actual_attributes))
        self.assertEqual(1, restored.data[0].id)
        # the original keeps its live records
        self.assertIs(post, compacter.data[0])


class TestLoad(unittest.TestCase):
    def test_schema_drift(self):
        old = OldWidget(id=1, a="a", b="b", c="c")
        envelope = Compacter(old, models=ModelRegistry(OldBase)).dump()

        compacter = Compacter.load(envelope, models=ModelRegistry(NewBase))
        widget = compacter.data

        self.assertIsInstance(widget, NewWidget)
        self.assertEqual("b", widget.b)
        self.assertEqual("c", widget.c)
        self.assertIn("d", inspect(widget).unloaded)
        self.assertFalse(hasattr(widget, "a"))
        self.assertEqual({"id", "a", "b", "c"}, set(compacter.dumped_attributes["Widget"]))
        self.assertEqual({"id", "b", "c", "d"}, set(compacter.actual_attributes["Widget"]))

    def test_missing_primary_key_stays_transient(self):
        restored = round_trip(Post(title="t", body="b", draft=False))

        self.assertTrue(inspect(restored).transient)
        self.assertEqual("t", restored.title)

    def test_unknown_model(self):
        envelope = {"attributes": {"Ghost": ["id"]}, "data": RecordDump("Ghost", [1])}

        with self.assertRaises(UnknownModelError):
            Compacter.load(envelope)

    def test_missing_attributes(self):
        envelope = {"attributes": {}, "data": RecordDump("Post", [1])}

        with self.assertRaises(MalformedDumpError):
            Compacter.load(envelope)

    def test_value_count_mismatch(self):
        envelope = {"attributes": {"Post": ["id", "title"]}, "data": RecordDump("Post", [1])}

        with self.assertRaises(MalformedDumpError):
            Compacter.load(envelope)

    def test_relationship_shape_mismatch(self):
        envelope = {
            "attributes": {"Post": ["id"], "Comment": ["id"]},
            "data": RecordDump("Post", [1], {"comments": RecordDump("Comment", [2])}),
        }

        with self.assertRaises(MalformedDumpError):
            Compacter.load(envelope)

    def test_relationship_wrong_model(self):
        envelope = {
            "attributes": {"Post": ["id"]},
            "data": RecordDump("Post", [1], {"comments": [RecordDump("Post", [2])]}),
        }

        with self.assertRaises(MalformedDumpError):
            Compacter.load(envelope)

    def test_unknown_relationship(self):
        envelope = {
            "attributes": {"Post": ["id"]},
            "data": RecordDump("Post", [1], {"likes": []}),
        }

        with self.assertRaises(MalformedDumpError):
            Compacter.load(envelope)

    def test_bad_envelope(self):
        for envelope in (None, [], {"data": 1}, {"attributes": [], "data": 1}):
            with self.assertRaises(MalformedDumpError):
                Compacter.load(envelope)

    def test_stray_marker(self):
        with self.assertRaises(MalformedDumpError):
            Compacter.load({"attributes": {}, "data": [Marker.UNSET]})


class TestEquality(unittest.TestCase):
    def test_eq(self):
        self.assertEqual(Compacter({"a": [1, 2]}), Compacter({"a": [1, 2]}))
        self.assertNotEqual(Compacter({"a": 1}), Compacter({"a": 2}))
        self.assertNotEqual(Compacter({"a": 1}), {"a": 1})

    def test_eq_after_round_trip(self):
        compacter = Compacter({"a": (1, "b")})

        self.assertEqual(compacter, pickle.loads(pickle.dumps(compacter)))

    def test_records_eq_after_round_trip(self):
        post = make_post(1, comments=[make_comment(10, 1)])
        compacter = Compacter([post, {"post": post, "comments_count": 1}])

        self.assertEqual(compacter, pickle.loads(pickle.dumps(compacter)))

    def test_records_compare_by_class_and_id(self):
        self.assertEqual(make_post(1), make_post(1, title="other"))
        self.assertEqual(hash(make_post(1)), hash(make_post(1)))
        self.assertNotEqual(make_post(1), make_post(2))
        self.assertNotEqual(make_post(1), make_comment(1))

        new = Post(title="t", body="b")
        self.assertEqual(new, new)
        self.assertNotEqual(new, Post(title="t", body="b"))


def main_suite() -> unittest.TestSuite:
    s = unittest.TestSuite()
    load_from = unittest.defaultTestLoader.loadTestsFromTestCase
    s.addTests(load_from(TestRoundTrip))
    s.addTests(load_from(TestDump))
    s.addTests(load_from(TestLoad))
    s.addTests(load_from(TestEquality))

    return s


def run():
    t = unittest.TextTestRunner()
    t.run(main_suite())


if __name__ == "__main__":
    run()
