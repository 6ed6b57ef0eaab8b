# vim: tabstop=4 shiftwidth=4 softtabstop=4

# Copyright (c) 2012 VMware, Inc.
# Copyright (c) 2011 Citrix Systems, Inc.
# Copyright 2011 OpenStack Foundation
#
#    Licensed under the Apache License, Version 2.0 (the "License"); you may
#    not use this file except in compliance with the License. You may obtain
#    a copy of the License at
#
#         http://www.apache.org/licenses/LICENSE-2.0
#
#    Unless required by applicable law or agreed to in writing, software
#    distributed under the License is distributed on an "AS IS" BASIS, WITHOUT
#    WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied. See the
#    License for the specific language governing permissions and limitations
#    under the License.

"""
Name to managed object id cache.

The cache is a pure optimization: the server stays the source of truth
and every entry can be dropped at any time with clear().
"""

import logging

LOG = logging.getLogger(__name__)


class MoidCache(object):
    """Per-type mapping of object names to managed object references."""

    def __init__(self, disabled=False):
        self.disabled = disabled
        self._entries = {}

    def get(self, mo_type, name):
        if self.disabled:
            return None
        return self._entries.get(mo_type, {}).get(name)

    def set(self, mo_type, name, moid):
        if self.disabled:
            return
        LOG.debug("Caching %s '%s' as %s", mo_type, name, moid)
        self._entries.setdefault(mo_type, {})[name] = moid

    def remove(self, mo_type, name):
        self._entries.get(mo_type, {}).pop(name, None)

    def clear(self, mo_type=None):
        if mo_type is None:
            self._entries.clear()
        else:
            self._entries.pop(mo_type, None)

    def __len__(self):
        return sum(len(names) for names in self._entries.values())


class NullCache(MoidCache):
    """A cache that never remembers anything."""

    def __init__(self):
        super(NullCache, self).__init__(disabled=True)
