"""Tests for :mod:`directory.services.profiles`."""

from unittest import TestCase, mock
from datetime import datetime, timedelta

from mimesis import Person
from pytz import UTC

from directory.domain import Education, Experience, Organization, Profile
from directory.services import profiles, users
from directory.services.datastore import db
from directory.services.exceptions import NoSuchProfile, ProfileExists

from .util import create_test_app


def make_profile(user_id: str, name: str, email: str) -> Profile:
    """Build a profile with two education records, in order."""
    return Profile(
        user_id=user_id,
        name=name,
        email=email,
        class_name='2015',
        house='Gryffindor',
        education=[
            Education('State U', 'Physics', 'BSc', 'September', '2011',
                      end_month='June', end_year='2015'),
            Education('Tech Institute', 'Astronomy', 'PhD', 'September',
                      '2015', is_current=True)
        ],
        experiences=[
            Experience('Acme', 'Remote', 'Engineer', 'May', '2019',
                       description='Rockets.')
        ],
        organizations=[
            Organization('Chess club', 'Captain', 'May', '2012')
        ]
    )


class TestProfiles(TestCase):
    """Each user may have one profile."""

    def setUp(self):
        """Initialize an in-memory database with a user."""
        self.app = create_test_app()
        self.context = self.app.app_context()
        self.context.push()
        person = Person()
        self.user = users.create_user(person.full_name(), person.email())

    def tearDown(self):
        """Tear down the database."""
        db.session.remove()
        db.drop_all()
        self.context.pop()

    def _profile(self, user=None) -> Profile:
        user = user or self.user
        return make_profile(user.user_id, user.name, user.email)

    def test_create_and_get(self):
        """A stored profile comes back as it went in."""
        created = profiles.create_profile(self._profile())
        self.assertIsNotNone(created.profile_id)
        self.assertIsNotNone(created.created)

        profile = profiles.get_profile(self.user.user_id)
        self.assertEqual(profile.profile_id, created.profile_id)
        self.assertEqual(profile.class_name, '2015')
        self.assertEqual(profile.house, 'Gryffindor')
        self.assertEqual([e.university for e in profile.education],
                         ['State U', 'Tech Institute'])
        self.assertTrue(profile.education[1].is_current)
        self.assertEqual(profile.experiences[0].description, 'Rockets.')
        self.assertEqual(profile.organizations[0].position, 'Captain')

    def test_one_profile_per_user(self):
        """A second profile for the same user is rejected."""
        profiles.create_profile(self._profile())
        with self.assertRaises(ProfileExists):
            profiles.create_profile(self._profile())

    def test_no_such_profile(self):
        """Getting a profile that does not exist raises."""
        with self.assertRaises(NoSuchProfile):
            profiles.get_profile(self.user.user_id)

    def test_update(self):
        """Changes to a profile are stored."""
        created = profiles.create_profile(self._profile())
        updated = profiles.update_profile(
            created._replace(name='Ada King', organizations=[])
        )
        self.assertEqual(updated.name, 'Ada King')
        self.assertEqual(updated.organizations, [])
        self.assertEqual(len(updated.experiences), 1)
        self.assertGreaterEqual(updated.updated, created.updated)
        self.assertEqual(profiles.get_profile(self.user.user_id).name,
                         'Ada King')

    def test_update_missing_profile(self):
        """Updating a profile that does not exist raises."""
        with self.assertRaises(NoSuchProfile):
            profiles.update_profile(self._profile())

    def test_delete(self):
        """A deleted profile is gone, and is returned as it was."""
        created = profiles.create_profile(self._profile())
        deleted = profiles.delete_profile(self.user.user_id)
        self.assertEqual(deleted.profile_id, created.profile_id)
        with self.assertRaises(NoSuchProfile):
            profiles.get_profile(self.user.user_id)
        with self.assertRaises(NoSuchProfile):
            profiles.delete_profile(self.user.user_id)

    def test_list_most_recent_first(self):
        """Profiles are listed in reverse order of creation."""
        start = datetime.now(tz=UTC)
        others = [users.create_user(f'User {i}', f'user{i}@example.com')
                  for i in range(2)]
        times = [start + timedelta(minutes=i) for i in range(3)]
        with mock.patch('directory.services.profiles.now',
                        side_effect=times):
            for user in [self.user] + others:
                profiles.create_profile(self._profile(user))
        listed = profiles.list_profiles()
        self.assertEqual([p.user_id for p in listed],
                         [others[1].user_id, others[0].user_id,
                          self.user.user_id])
        self.assertEqual([p.owner.email for p in listed],
                         ['user1@example.com', 'user0@example.com',
                          self.user.email])
        self.assertIsNone(profiles.get_profile(self.user.user_id).owner)
